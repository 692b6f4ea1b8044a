"""Finding, checking and controlling Tor."""