
class CatalogLookupError(Exception):
    """Raised when a segment, offer or channel id is not in the catalog."""
    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class CampaignNotFoundError(Exception):
    """Raised when the execution tracker has no campaign with the given id."""
    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details
