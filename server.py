import os
import time
from pocketftp import config
from pocketftp.log import init_logger, setup_logger
from pocketftp.net import server_url
from pocketftp.server_core import start_server, stop_server

logger = setup_logger("server")

if __name__ == "__main__":
    init_logger(config.LOG_LEVEL)

    # Crear directorio raíz si no existe
    root_dir = os.path.abspath(config.SERVER_ROOT)
    os.makedirs(root_dir, exist_ok=True)
    if not os.access(root_dir, os.R_OK | os.W_OK):
        raise SystemExit(f"Sin permisos de lectura/escritura sobre {root_dir}")

    port = config.PORT
    if hasattr(os, "geteuid") and os.geteuid() != 0 and 0 < port < 1024:
        logger.warning(f"Aviso: ejecutar sin root en el puerto {port} fallará. Usando puerto 2121.")
        port = 2121

    server = start_server(port, root_dir, config.FTP_USER, config.FTP_PASSWORD, host=config.HOST)
    url = server_url(server.port)
    logger.info("------------------------------------------------")
    logger.info(f"--- Servidor FTP activo en {url or 'puerto %d' % server.port} ---")
    logger.info("------------------------------------------------")

    try:
        while server.running:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Servidor detenido por teclado")
    finally:
        stop_server(server)
