import ipaddress
import socket
from pocketftp.log import setup_logger

logger = setup_logger(__name__)


def _usable_ipv4(ip, allow_loopback=True):
    """Devuelve ip como IPv4 en texto si sirve para anunciarse, o None."""
    if not ip:
        return None
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return None
    if addr.version == 6:
        # ::ffff:a.b.c.d en sockets de doble pila
        addr = addr.ipv4_mapped
        if addr is None:
            return None
    if addr.is_unspecified:
        return None
    if addr.is_loopback and not allow_loopback:
        return None
    return str(addr)


def get_local_ipv4():
    """IPv4 local no loopback de esta máquina, o None si no hay ninguna."""
    # "UDP trick": averiguar la IP de salida (no envía paquetes)
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(("8.8.8.8", 80))
        ip = _usable_ipv4(s.getsockname()[0], allow_loopback=False)
        if ip:
            return ip
    except OSError:
        pass
    finally:
        s.close()

    # fallback: resolución del hostname (menos fiable)
    try:
        _, _, addresses = socket.gethostbyname_ex(socket.gethostname())
    except OSError:
        return None
    for candidate in addresses:
        ip = _usable_ipv4(candidate, allow_loopback=False)
        if ip:
            return ip
    return None


def get_advertised_ip(control_socket, pasv_address=None):
    """
    IP a anunciar en la respuesta 227, o None si no hay ninguna IPv4 usable.

    Orden: dirección configurada, dirección local del socket de control
    (la que el cliente ya sabe alcanzar) y por último get_local_ipv4().

    A diferencia de get_local_ipv4(), la dirección del socket de control
    puede ser loopback: si el cliente entró por 127.0.0.1 es la única que
    puede alcanzar. En cualquier otro caso se anuncia una IPv4 no loopback.
    """
    if pasv_address:
        try:
            ip = _usable_ipv4(socket.gethostbyname(pasv_address))
            if ip:
                return ip
        except OSError as e:
            logger.warning(f"[PASV] No se pudo resolver FTP_PASV_ADDRESS={pasv_address}: {e}")

    try:
        local = control_socket.getsockname()
    except OSError:
        local = None
    # Los sockets AF_UNIX devuelven una cadena, no (host, port)
    if isinstance(local, tuple):
        ip = _usable_ipv4(local[0])
        if ip:
            return ip

    return get_local_ipv4()


def encode_pasv_address(ip, port):
    """Codificación h1,h2,h3,h4,p1,p2 de la respuesta 227."""
    octets = ip.split('.')
    p1, p2 = port // 256, port % 256
    return ','.join(octets + [str(p1), str(p2)])


def server_url(port, ip=None):
    """Dirección externa ftp://ip:port para mostrar al usuario, o None."""
    ip = ip or get_local_ipv4()
    if ip is None:
        return None
    return f"ftp://{ip}:{port}"
