"""Connection credentials.

Learn: the relay never stores sessions. It signs a short JWT for the
caller-supplied user name and hands it to the client, which presents it
to the broker when opening the real-time connection. The broker checks
signature and expiry; the relay only mints.
"""
