import os
from pocketftp.errors import OutsideRootError


def canonical_root(root_dir):
    """Ruta canónica (symlinks resueltos) del directorio raíz."""
    return os.path.realpath(os.path.abspath(root_dir))


def is_within_root(root_dir, path):
    """True si path es root_dir o un descendiente. Ambas rutas canónicas."""
    if path == root_dir:
        return True
    try:
        return os.path.commonpath([root_dir, path]) == root_dir
    except ValueError:
        # Unidades distintas en Windows, o mezcla de rutas relativas/absolutas
        return False


def resolve_path(root_dir, current_dir, user_path):
    """
    Devuelve la ruta canónica dentro del root para una ruta del cliente.

    Las rutas que empiezan por '/' se interpretan relativas a root_dir, el
    resto relativas a current_dir. Se resuelven '..' y symlinks antes de
    comprobar el confinamiento. Lanza OutsideRootError si el resultado
    sale del root o si la ruta no es representable (byte NUL).
    """
    if '\x00' in user_path:
        # Byte NUL embebido: no es una ruta válida del sistema de ficheros
        raise OutsideRootError("Invalid path")
    if user_path.startswith('/'):
        base = root_dir
        relative_path = user_path.lstrip('/')
    else:
        base = current_dir
        relative_path = user_path

    candidate = os.path.realpath(os.path.join(base, relative_path))
    if not is_within_root(root_dir, candidate):
        raise OutsideRootError()
    return candidate


def safe_path(session, path):
    """resolve_path con el root y el directorio actual de la sesión."""
    return resolve_path(session.root_dir, session.current_dir, path)


def parent_or_root(root_dir, current_dir):
    """Directorio padre de current_dir, o root_dir si el padre queda fuera."""
    parent = os.path.realpath(os.path.join(current_dir, '..'))
    if is_within_root(root_dir, parent):
        return parent
    return root_dir


def display_path(root_dir, path):
    """Ruta tal como la ve el cliente: sin el prefijo del root, '/' si vacía."""
    rel = os.path.relpath(path, root_dir)
    if rel == '.':
        return '/'
    return '/' + rel.replace(os.sep, '/')
