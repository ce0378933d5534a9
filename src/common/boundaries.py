from importlib import import_module
from types import ModuleType

from loguru import logger

from src import settings


def import_boundary_modules(submodule: str) -> list[ModuleType]:
    """
    Imports `<boundary>.<submodule>` for every boundary in settings.BOUNDARIES.
    A boundary without that module is skipped, a broken import inside one is raised
    """
    modules = []
    for boundary in settings.BOUNDARIES:
        import_path = f'{settings.BASE_MODULE}.{boundary}.{submodule}'
        try:
            modules.append(import_module(import_path))
        except ModuleNotFoundError as exc:
            if exc.name != import_path:
                raise
            logger.debug(f'{boundary} has no {submodule} module')
            continue
        logger.debug(f'imported: {import_path}')

    return modules
