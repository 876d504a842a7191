import hmac
import os
from pocketftp import transfer
from pocketftp.errors import OutsideRootError
from pocketftp.log import setup_logger
from pocketftp.net import encode_pasv_address, get_advertised_ip
from pocketftp.paths import display_path, parent_or_root, safe_path

logger = setup_logger(__name__)


def _same(a, b):
    """Comparación en tiempo constante de dos cadenas."""
    return hmac.compare_digest(a.encode('utf-8', 'surrogateescape'), b.encode('utf-8', 'surrogateescape'))

# --- COMANDOS BASICOS ---

def USER(arg, session):
    # No cambia el estado de autenticación; solo recuerda el nombre
    session.pending_user = arg
    session.reply("331 User name ok, need password.")


def PASS(arg, session):
    user = session.pending_user
    if user is not None and _same(user, session.username) and _same(arg, session.password):
        session.logged_in = True
        logger.info(f"[AUTH] Usuario {user} autenticado desde {session.client_ip}")
        session.reply("230 User logged in, proceed.")
    else:
        session.logged_in = False
        logger.warning(f"[AUTH] Login incorrecto para {user!r} desde {session.client_ip}")
        session.reply("530 Login incorrect.")


def PWD(arg, session):
    path = display_path(session.root_dir, session.current_dir).replace('"', '""')
    session.reply(f'257 "{path}" is the current directory.')


def CWD(arg, session):
    if not arg:
        session.reply("501 Syntax error in parameters or arguments.")
        return
    if arg == '..':
        CDUP(arg, session)
        return
    if arg in ('/', '~'):
        session.current_dir = session.root_dir
        session.reply("250 Directory successfully changed.")
        return

    try:
        new_path = safe_path(session, arg)
    except OutsideRootError:
        logger.warning(f"[CWD] Intento de salir del root desde {session.client_ip}: {arg!r}")
        session.reply("550 Access denied.")
        return

    if os.path.isdir(new_path) and os.access(new_path, os.R_OK | os.X_OK):
        session.current_dir = new_path
        session.reply(f"250 Directory successfully changed to {display_path(session.root_dir, new_path)}")
    else:
        session.reply("550 Failed to change directory: not found, not a directory, or permission denied.")


def CDUP(arg, session):
    # Por encima del root se queda en el root en vez de fallar
    session.current_dir = parent_or_root(session.root_dir, session.current_dir)
    session.reply("250 Directory successfully changed.")


def TYPE(arg, session):
    mode = arg.split()[0].upper() if arg else ''
    if mode == 'I':
        session.reply("200 Type set to I (Binary).")
    elif mode == 'A':
        # Sin conversión de finales de línea: las transferencias son byte a byte
        session.reply("200 Type set to A (ASCII).")
    else:
        session.reply("504 Type not supported.")


def SYST(arg, session):
    session.reply("215 UNIX Type: L8")


def FEAT(arg, session):
    session.reply("211-Features:")
    session.reply(" UTF8")
    session.reply(" PASV")
    session.reply(" SIZE")
    session.reply("211 End")


def OPTS(arg, session):
    if arg.upper().startswith("UTF8 ON"):
        session.reply("200 UTF8 set to on.")
    else:
        session.reply("501 Option not understood.")


def NOOP(arg, session):
    session.reply("200 NOOP command successful.")


def QUIT(arg, session):
    session.reply("221 Goodbye.")
    return True


def SIZE(arg, session):
    try:
        path = safe_path(session, arg)
    except OutsideRootError:
        logger.warning(f"[SIZE] Intento de salir del root desde {session.client_ip}: {arg!r}")
        session.reply("550 Access denied.")
        return
    if os.path.isfile(path) and os.access(path, os.R_OK):
        session.reply(f"213 {os.path.getsize(path)}")
    else:
        session.reply("550 Could not get file size.")

# --- CANAL DE DATOS ---

def PASV(arg, session):
    """
    Abre un listener PASV en un puerto efímero y envía la 227.
    No hace accept() aquí; lo hará el comando de transferencia.
    """
    try:
        port = session.data_channel.open_passive()
    except OSError as e:
        logger.error(f"[PASV] No se pudo abrir el listener: {e}")
        session.reply("425 Can't open data connection.")
        return

    server_ip = get_advertised_ip(session.client_socket, session.pasv_address)
    if server_ip is None:
        logger.error("[PASV] No hay dirección IPv4 usable para anunciar")
        session.data_channel.close_all()
        session.reply("425 Can't open data connection (IP Address Error).")
        return

    logger.debug(f"[PASV] Anunciando {server_ip}:{port}")
    session.reply(f"227 Entering Passive Mode ({encode_pasv_address(server_ip, port)}).")


def _require_passive(session):
    if not session.data_channel.is_open:
        session.reply("425 Use PASV first.")
        return False
    return True


def _refuse(session, message):
    # Toda salida de un comando de datos libera el canal
    session.data_channel.close_all()
    session.reply(message)


def LIST(arg, session):
    # El argumento (p.ej. "-la") se ignora: siempre se lista el directorio actual
    if not _require_passive(session):
        return
    transfer.send_listing(session, session.current_dir)


def RETR(arg, session):
    if not _require_passive(session):
        return
    try:
        path = safe_path(session, arg)
    except OutsideRootError:
        logger.warning(f"[RETR] Intento de salir del root desde {session.client_ip}: {arg!r}")
        _refuse(session, "550 Access denied.")
        return
    if not os.path.isfile(path):
        _refuse(session, "550 File not found or not a regular file.")
        return
    if not os.access(path, os.R_OK):
        _refuse(session, "550 Permission denied: cannot read file.")
        return
    transfer.send_file(session, path)


def STOR(arg, session):
    if not _require_passive(session):
        return
    if not arg:
        _refuse(session, "501 Syntax error in parameters or arguments.")
        return
    try:
        path = safe_path(session, arg)
    except OutsideRootError:
        logger.warning(f"[STOR] Intento de salir del root desde {session.client_ip}: {arg!r}")
        _refuse(session, "550 Access denied.")
        return
    if os.path.isdir(path):
        _refuse(session, "550 Target is a directory.")
        return

    parent = os.path.dirname(path)
    try:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
        logger.warning(f"[STOR] No se pudo crear el directorio padre: {e}")
        _refuse(session, "550 Cannot create directory.")
        return
    if not os.access(parent, os.W_OK):
        _refuse(session, "550 Permission denied: cannot write to directory.")
        return
    if os.path.exists(path) and not os.access(path, os.W_OK):
        _refuse(session, "550 Permission denied: file exists and is not writable.")
        return
    transfer.receive_file(session, path)

# --- TABLA DE COMANDOS ---

COMMANDS = {
    "USER": USER,
    "PASS": PASS,
    "PWD": PWD,
    "XPWD": PWD,
    "CWD": CWD,
    "CDUP": CDUP,
    "XCUP": CDUP,
    "PASV": PASV,
    "LIST": LIST,
    "NLST": LIST,
    "RETR": RETR,
    "STOR": STOR,
    "SIZE": SIZE,
    "TYPE": TYPE,
    "SYST": SYST,
    "FEAT": FEAT,
    "OPTS": OPTS,
    "NOOP": NOOP,
    "QUIT": QUIT,
}

# Comandos que no requieren login
PUBLIC_COMMANDS = frozenset({"USER", "PASS", "QUIT", "FEAT", "SYST", "OPTS", "TYPE", "NOOP"})


def parse_command(line):
    """Divide una línea en (VERBO, argumento). El verbo va en mayúsculas."""
    line = line.strip()
    if not line:
        return '', ''
    parts = line.split(None, 1)
    cmd = parts[0].upper()
    arg = parts[1].strip() if len(parts) > 1 else ''
    return cmd, arg


def dispatch(cmd, arg, session):
    """
    Ejecuta un comando ya parseado. Devuelve True si la sesión debe terminar (QUIT).
    """
    handler = COMMANDS.get(cmd)
    if handler is None:
        logger.info(f"[CORE] Comando no implementado: {cmd}")
        session.reply("502 Command not implemented.")
        return False
    if cmd not in PUBLIC_COMMANDS and not session.logged_in:
        session.reply("530 Not logged in.")
        return False
    return bool(handler(arg, session))
