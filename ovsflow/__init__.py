"""Build, validate and parse Open vSwitch OpenFlow match expressions and match flows."""

__version__ = "0.1.0"