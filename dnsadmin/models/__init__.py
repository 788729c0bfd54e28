"""
DNS Models for dnsadmin
"""

from .records import *
from .zones import *
from .acls import *
from .server import *
from .dnssec import *
from .templates import *
from .common import *
