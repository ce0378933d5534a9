from src.common.exceptions import InternalException


class EmailFailedToSend(InternalException):
    default_detail = 'Email failed to send'
    default_code = 'email_send_failure'
