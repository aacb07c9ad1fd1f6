class RelayError(Exception):
    """Base class for relay errors."""


class RegistryError(RelayError):
    """Registry invariant violated: duplicate id or unknown id.

    Ids are generated by the relay, so this only happens on an internal fault.
    """


class DeliveryError(RelayError):
    """A frame could not be handed to a peer's connection."""
