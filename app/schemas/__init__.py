# Schemas package (re-export feature modules for stable imports)
from .appointments.appointment import *
from .links.link import *
from .common.common import *
