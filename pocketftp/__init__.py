import logging
from pocketftp.server_core import FTPServer, Session, start_server, stop_server

# Como librería no emite nada hasta que el anfitrión configure logging
logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "1.0.0"
