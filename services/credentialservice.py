import logging

from sqlalchemy.future import select

import config
from db import session_scope
from models.apicredential import ApiCredential, ApiType
from services.currencyservice import CurrencyService
from utilities.encryption import EncryptionError, decrypt_token, encrypt_token, validate_encryption_key
from utilities.exceptions import InvalidConfigError, NotFoundError, UnauthorizedError, ValidationError

logger = logging.getLogger(__name__)


def _encryption_key() -> str:
    key = config.TOKEN_ENCRYPTION_KEY
    if not validate_encryption_key(key):
        raise InvalidConfigError("TOKEN_ENCRYPTION_KEY is missing or invalid")
    return key


class CredentialService:

    @staticmethod
    async def set_credential(guild_id: int, token: str, is_authorized: bool,
                             api_type: ApiType = ApiType.UNBELIEVABOAT) -> ApiCredential:
        """
        Encrypt and store the external API token for the currency of a guild.
        Replaces any token already stored for that service.

        :param guild_id: The guild whose currency the token belongs to.
        :param token: The plaintext authorization token.
        :param is_authorized: Whether the caller administers that guild.
        :param api_type: The external service.
        :return: The stored `ApiCredential` object.
        """
        if not is_authorized:
            raise UnauthorizedError("Only an administrator of this guild can set the API token")
        token = (token or "").strip()
        if not token:
            raise ValidationError("Token cannot be empty")
        encrypted = encrypt_token(token, _encryption_key())

        async with session_scope() as session:
            currency = await CurrencyService.read_currency_by_guild(guild_id, session)
            if not currency:
                raise NotFoundError("No currency found for this guild")

            result = await session.execute(
                select(ApiCredential).where(ApiCredential.currency_id == currency.currency_id,
                                            ApiCredential.api_type == api_type)
            )
            credential = result.scalar_one_or_none()
            if credential:
                credential.encrypted_token = encrypted
            else:
                credential = ApiCredential(currency_id=currency.currency_id, api_type=api_type,
                                           encrypted_token=encrypted)
                session.add(credential)

        logger.info("Stored %s credential for currency %s", api_type.value, currency.ticker)
        return credential

    @staticmethod
    async def get_token(currency_id: int, api_type: ApiType = ApiType.UNBELIEVABOAT) -> str:
        """
        Load and decrypt the token for a currency.

        :raises InvalidConfigError: No token stored, no usable key, or the token cannot be decrypted.
        """
        async with session_scope() as session:
            result = await session.execute(
                select(ApiCredential.encrypted_token).where(ApiCredential.currency_id == currency_id,
                                                            ApiCredential.api_type == api_type)
            )
            encrypted = result.scalar_one_or_none()

        if not encrypted:
            raise InvalidConfigError("UnbelievaBoat API token not configured for this currency")
        try:
            return decrypt_token(encrypted, _encryption_key())
        except EncryptionError as e:
            logger.error("Stored %s credential for currency %s cannot be decrypted: %s",
                         api_type.value, currency_id, e)
            raise InvalidConfigError("Stored API token cannot be decrypted") from e

    @staticmethod
    async def delete_credential(guild_id: int, is_authorized: bool,
                                api_type: ApiType = ApiType.UNBELIEVABOAT) -> bool:
        """
        Delete the token for the currency of a guild.

        :return: `True` if a token was deleted, `False` otherwise.
        """
        if not is_authorized:
            raise UnauthorizedError("Only an administrator of this guild can remove the API token")

        async with session_scope() as session:
            currency = await CurrencyService.read_currency_by_guild(guild_id, session)
            if not currency:
                raise NotFoundError("No currency found for this guild")
            result = await session.execute(
                select(ApiCredential).where(ApiCredential.currency_id == currency.currency_id,
                                            ApiCredential.api_type == api_type)
            )
            credential = result.scalar_one_or_none()
            if not credential:
                return False
            await session.delete(credential)
            return True
