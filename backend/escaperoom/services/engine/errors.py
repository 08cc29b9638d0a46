class UnknownStationError(LookupError):
    """Raised when a station key is not in the catalog."""

    def __init__(self, station_key):
        super().__init__(f'Unknown station: {station_key!r}')
        self.station_key = station_key
