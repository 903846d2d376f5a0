from .records import CredentialRecord, normalize_record, normalize_records
from .extraction_engine import extract, detect_grammar, Grammar, GRAMMARS, FALLBACK_GRAMMAR
from .token_classifier import (
    is_email,
    is_api_key_token,
    is_country_or_location_word,
    is_temporary_email_domain,
    guess_account_type,
    mask_secret,
)
