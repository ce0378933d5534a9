"""
uvicorn src.network.http.launch:server
"""

from src import setup

setup.run()

from src.network.http.server import server as http_server

# Called from the process manager which actually boots the server
server = http_server
