import os
from pocketftp.config import CHUNK_SIZE
from pocketftp.errors import DataConnectionError
from pocketftp.listing import list_directory
from pocketftp.log import setup_logger

logger = setup_logger(__name__)


def _error_detail(e):
    # strerror no incluye el nombre del archivo
    return getattr(e, 'strerror', None) or e.__class__.__name__


def _abort(session, tag, e):
    logger.error(f"[{tag}] Transferencia abortada: {e}")
    session.reply(f"426 Data connection error or transfer aborted. {_error_detail(e)}")


def _no_connection(session, tag, e):
    logger.warning(f"[{tag}] Sin conexión de datos: {e}")
    session.reply("425 Can't open data connection.")


def send_file(session, path):
    """RETR: envía el archivo por la conexión de datos en bloques de CHUNK_SIZE."""
    name = os.path.basename(path)
    try:
        with session.data_channel.transfer() as conn:
            size = os.path.getsize(path)
            session.reply(f"150 Opening BINARY mode data connection for {name} ({size} bytes).")
            with open(path, 'rb') as f:
                for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
                    conn.sendall(chunk)
    except DataConnectionError as e:
        _no_connection(session, 'RETR', e)
        return False
    except OSError as e:
        _abort(session, 'RETR', e)
        return False
    logger.info(f"[RETR] Archivo enviado: {name}")
    session.reply("226 Transfer complete.")
    return True


def receive_file(session, path):
    """STOR: escribe todo lo recibido en path (creado o truncado). Sin rollback si falla."""
    name = os.path.basename(path)
    try:
        with session.data_channel.transfer() as conn:
            session.reply(f"150 Opening BINARY mode data connection for {name}.")
            with open(path, 'wb') as f:
                for chunk in iter(lambda: conn.recv(CHUNK_SIZE), b''):
                    f.write(chunk)
                f.flush()
    except DataConnectionError as e:
        _no_connection(session, 'STOR', e)
        return False
    except OSError as e:
        _abort(session, 'STOR', e)
        return False
    logger.info(f"[STOR] Archivo recibido: {name}")
    session.reply("226 Transfer complete.")
    return True


def send_listing(session, directory):
    """LIST/NLST: envía una línea por entrada del directorio."""
    try:
        with session.data_channel.transfer() as conn:
            session.reply("150 Opening ASCII mode data connection for file list.")
            count = 0
            for line in list_directory(directory):
                conn.sendall(line.encode('utf-8', errors='surrogateescape'))
                count += 1
    except DataConnectionError as e:
        _no_connection(session, 'LIST', e)
        return False
    except OSError as e:
        _abort(session, 'LIST', e)
        return False
    logger.debug(f"[LIST] {count} entradas enviadas")
    session.reply("226 Transfer complete.")
    return True
