"""
Portfolio Server
Flask server for the portfolio site API and admin dashboard backend
"""

import sys
import signal
import socket
import logging

from .app import create_app
from .config import load_config, configure_logging

logger = logging.getLogger(__name__)


def signal_handler(sig, frame):
    logger.info('🛑 Gracefully shutting down server...')
    sys.exit(0)


def check_port_available(host, port):
    """Check if port is available"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex((host, port)) != 0


def main():
    config = load_config()
    configure_logging(config['LOG_LEVEL'])

    host = config['HOST']
    port = int(config['PORT'])

    if not check_port_available(host, port):
        logger.error(f"❌ Port {port} is already in use!")
        logger.info("   Use a different port: PORTFOLIO_PORT=8080 portfolio-server")
        sys.exit(1)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    app = create_app()

    print(f"""
🚀 Portfolio Server Starting...
========================================
📁 Data directory:   {app.config['DATA_DIR']}
🖼️  Upload directory: {app.config['UPLOAD_DIR']}
🌐 API:              http://{host}:{port}/api/
📧 SMTP:             {'enabled' if app.extensions['portfolio'].mailer.enabled else 'disabled'}

⏹️  Press Ctrl+C to stop the server
========================================
    """)

    try:
        app.run(
            host=host,
            port=port,
            debug=False,
            threaded=True,
            use_reloader=False
        )
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped by user")
