"""mDNS host responder package"""

from .config.config_schema import ResponderConfig as ResponderConfig
from .server import MdnsServer as MdnsServer
