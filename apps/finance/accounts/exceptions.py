class LedgerError(Exception):
    """Base class for ledger posting failures."""


class ConfigurationError(LedgerError):
    """
    An event cannot be posted until an operator fixes tenant configuration
    or the source record. Retrying without that fix gives the same result.
    """

    def __init__(self, message, missing_mapping=''):
        super().__init__(message)
        self.missing_mapping = missing_mapping


class UnbalancedEntryError(ConfigurationError):
    def __init__(self, total_debit, total_credit):
        super().__init__(
            f'Entry is unbalanced: debits {total_debit} != credits {total_credit}.',
            missing_mapping='balance',
        )
        self.total_debit = total_debit
        self.total_credit = total_credit


class InvalidJournalLineError(ConfigurationError):
    pass
