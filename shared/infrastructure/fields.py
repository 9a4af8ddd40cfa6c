"""
Custom Django model fields for sensitive data.

EncryptedCharField encrypts values before they reach the database and
decrypts them when rows are loaded.
"""

import logging

from cryptography.fernet import InvalidToken
from django.core import validators
from django.db import models

from .encryption import decrypt_string, encrypt_string

logger = logging.getLogger(__name__)


class EncryptedCharField(models.TextField):
    """
    Short text stored encrypted.

    ``max_length`` limits the plaintext; the ciphertext column is
    unbounded text.
    """

    description = "Encrypted text field"

    def __init__(self, *args, **kwargs):
        self.plaintext_max_length = kwargs.pop('max_length', None)
        super().__init__(*args, **kwargs)
        if self.plaintext_max_length is not None:
            self.validators.append(validators.MaxLengthValidator(self.plaintext_max_length))

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        if self.plaintext_max_length is not None:
            kwargs['max_length'] = self.plaintext_max_length
        return name, path, args, kwargs

    def from_db_value(self, value, expression, connection):
        if value is None:
            return value
        try:
            return decrypt_string(value)
        except InvalidToken:
            logger.warning("Could not decrypt %s; was ENCRYPTION_KEY rotated?", self.attname)
            return ''

    def get_prep_value(self, value):
        if value is None or value == '':
            return ''
        return encrypt_string(str(value))

    def to_python(self, value):
        if value is None:
            return value
        return str(value)
