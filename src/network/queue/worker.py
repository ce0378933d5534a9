"""
dramatiq src.network.queue.worker
"""

from src import setup

setup.run()

# ruff: noqa: E402
import dramatiq
from loguru import logger

from src.common.boundaries import import_boundary_modules

# Actors register on the global broker as their tasks module is imported,
# a boundary missing from settings.BOUNDARIES never gets its actors consumed
import_boundary_modules('tasks')

registered_actors = sorted(dramatiq.get_broker().get_declared_actors())
logger.info(f'worker consuming actors: {registered_actors}')
