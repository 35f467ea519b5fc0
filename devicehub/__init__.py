"""DeviceHub — mobile device tracking and action dispatch.

Components:
  - Registry: live, discovery-ordered set of reachable devices
  - Resolution: turns platform/device intent into a committed scope
  - Dispatcher: fans an action out over the scope with per-device isolation
  - Detection: recurring refresh over every discovery source
  - Service: the facade the command layer and HTTP API talk to
"""

__version__ = "0.1.0"
