import os
import time

LIST_TIME_FORMAT = "%b %d %H:%M"


def permission_string(path, is_dir):
    """Permisos estilo 'ls -l' a partir de lo que el proceso puede hacer."""
    return (
        ('d' if is_dir else '-')
        + ('r' if os.access(path, os.R_OK) else '-')
        + ('w' if os.access(path, os.W_OK) else '-')
        + ('x' if os.access(path, os.X_OK) else '-')
        + '------'
    )


def format_entry(path, name=None):
    """
    Una línea de LIST para path, terminada en CRLF.
    Lanza OSError si no se puede hacer stat.
    """
    st = os.stat(path)
    is_dir = os.path.isdir(path)
    name = name if name is not None else os.path.basename(path)
    last_modified = time.strftime(LIST_TIME_FORMAT, time.localtime(st.st_mtime))
    return f"{permission_string(path, is_dir)} 1 ftp ftp {st.st_size:>15} {last_modified} {name}\r\n"


def list_directory(directory):
    """
    Genera las líneas de LIST de un directorio, ordenadas por nombre.

    Las entradas sin permiso de lectura o que desaparecen durante el
    listado se omiten. Si el propio directorio no se puede listar se
    propaga el OSError.
    """
    names = sorted(os.listdir(directory))
    for name in names:
        entry_path = os.path.join(directory, name)
        if not os.access(entry_path, os.R_OK):
            continue
        try:
            yield format_entry(entry_path, name)
        except OSError:
            continue
