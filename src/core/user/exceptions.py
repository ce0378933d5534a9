from fastapi import status

from src.common.exceptions import InternalException


class UserNotFound(InternalException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'User not found.'
    default_code = 'user_not_found'


class ContactRequired(InternalException):
    """
    A new user cannot be created without a phone number or email
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'A phone number or email is required.'
    default_code = 'contact_required'
