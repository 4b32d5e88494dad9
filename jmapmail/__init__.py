"""Client library for mailboxes, messages, identities, masked emails and quotas over JMAP."""

__version__ = "0.1.0"