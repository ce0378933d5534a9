from fastapi import status

from src.common.exceptions import InternalException


class RepositoryObjectNotFound(InternalException):
    """
    Raised by get / update on a missing row, services translate it into a domain error
    """

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Object not found.'
    default_code = 'not_found'


class MultipleRepositoryObjectsFound(InternalException):
    default_detail = 'Expected a single object.'
    default_code = 'multiple_objects_found'


class PreventingModelTruncation(InternalException):
    """
    Bulk delete / update called without a filtering clause
    """

    default_detail = 'Refusing to modify every row.'
    default_code = 'preventing_truncation'
