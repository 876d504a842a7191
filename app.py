import os
import streamlit as st
from pocketftp import config
from pocketftp.log import init_logger
from pocketftp.net import get_local_ipv4, server_url
from pocketftp.server_core import start_server, stop_server

st.set_page_config(page_title="Servidor FTP", page_icon="📂", layout="centered")

# -----------------------------------------------------------------------------------------------------
# Estado compartido
# -----------------------------------------------------------------------------------------------------

# El servidor sobrevive a los reruns y a las distintas pestañas del navegador
@st.cache_resource
def get_holder():
    init_logger(config.LOG_LEVEL)
    return {"server": None}

holder = get_holder()

if "console" not in st.session_state:
    st.session_state.console = []

# -----------------------------------------------------------------------------------------------------
# Funciones auxiliares
# -----------------------------------------------------------------------------------------------------

def log_message(msg):
    st.session_state.console.append(msg)

def is_running():
    server = holder["server"]
    return server is not None and server.running

def check_root(root_dir):
    """Devuelve un mensaje de error si el root no es usable, o None."""
    if not root_dir:
        return "La ruta raíz no puede estar vacía"
    if not os.path.isdir(root_dir):
        return "La ruta raíz no existe o no es un directorio"
    if not os.access(root_dir, os.R_OK | os.W_OK | os.X_OK):
        return "Sin permisos de lectura/escritura sobre la ruta raíz"
    return None

def start(root_dir, port, username, password):
    if is_running():
        st.warning("⚠️ El servidor ya está en marcha")
        return
    error = check_root(root_dir)
    if error:
        st.error(f"❌ {error}")
        return
    if not username or not password:
        st.error("❌ Usuario y contraseña son obligatorios")
        return
    try:
        holder["server"] = start_server(int(port), root_dir, username, password, host=config.HOST)
    except OSError as e:
        st.error(f"❌ No se pudo iniciar el servidor: {e}")
        log_message(f"💥 Error al iniciar: {e}")
        return
    log_message(f"🚀 Servidor iniciado en el puerto {holder['server'].port}")

def stop():
    server = holder["server"]
    if server is None:
        return
    stop_server(server)
    holder["server"] = None
    log_message("🛑 Servidor detenido")

# -----------------------------------------------------------------------------------------------------
# Interfaz
# -----------------------------------------------------------------------------------------------------

st.title("📂 Servidor FTP")

with st.form("config"):
    root_dir = st.text_input("Directorio raíz", value=os.path.abspath(config.SERVER_ROOT), disabled=is_running())
    port = st.number_input("Puerto", min_value=0, max_value=65535, value=config.PORT, disabled=is_running())
    username = st.text_input("Usuario", value=config.FTP_USER, disabled=is_running())
    password = st.text_input("Contraseña", value=config.FTP_PASSWORD, type="password", disabled=is_running())
    col_start, col_stop = st.columns(2)
    start_clicked = col_start.form_submit_button("▶️ Iniciar", disabled=is_running())
    stop_clicked = col_stop.form_submit_button("⏹️ Detener", disabled=not is_running())

if start_clicked:
    start(root_dir.strip(), port, username, password)
if stop_clicked:
    stop()

if is_running():
    server = holder["server"]
    url = server_url(server.port)
    if url:
        st.success(f"Servidor activo en {url}")
    else:
        st.warning(f"Servidor activo en el puerto {server.port}, pero no se pudo obtener la IP local")
    st.caption(f"Raíz: {server.root_dir} · Sesiones activas: {server.active_sessions()}")
else:
    ip = get_local_ipv4()
    st.info("Servidor detenido" + (f" · IP local: {ip}" if ip else ""))

if st.session_state.console:
    with st.expander("Consola"):
        for line in st.session_state.console:
            st.text(line)
