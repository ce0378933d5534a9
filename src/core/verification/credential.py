import datetime
import uuid

import jwt

from src import settings
from src.common.utils import as_aware_utc, utcnow
from src.core.user import UserRead
from src.core.verification.domains import CredentialClaims
from src.core.verification.exceptions import CredentialExpired, CredentialInvalid


class CredentialService:
    """
    Stateless signed session credential, verifiable without a store lookup
    """

    def __init__(
        self,
        secret_key: str | None = None,
        lifetime: datetime.timedelta | None = None,
        algorithm: str | None = None,
    ):
        self.secret_key = secret_key or settings.SESSION_CREDENTIAL_SETTINGS['SECRET']
        self.lifetime = lifetime or settings.SESSION_CREDENTIAL_SETTINGS['LIFETIME']
        self.algorithm = algorithm or settings.SESSION_CREDENTIAL_SETTINGS['ALGORITHM']

    @classmethod
    def factory(cls) -> 'CredentialService':
        return cls()

    def mint(self, user: UserRead, verified_channels: int, now: datetime.datetime | None = None) -> str:
        issued_at = int(as_aware_utc(now or utcnow()).timestamp())
        jwt_content = {
            'jti': str(uuid.uuid4()),
            'sub': user.id,
            'verified': True,
            'verified_channels': verified_channels,
            'name': user.name,
            'phone': user.phone,
            'email': user.email,
            'iat': issued_at,
            'nbf': issued_at,
            'exp': issued_at + int(self.lifetime.total_seconds()),
        }
        return jwt.encode(jwt_content, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str | None) -> CredentialClaims:
        if not token or not isinstance(token, str):
            raise CredentialInvalid(message='Credential missing')

        try:
            decoded_token = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise CredentialExpired(message='Credential expired')
        except jwt.InvalidTokenError:
            raise CredentialInvalid(message='Credential invalid')

        return CredentialClaims(**decoded_token)
