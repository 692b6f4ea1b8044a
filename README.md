# wahay

Building blocks for hosting and joining voice meetings over Tor onion
services. The package finds a usable Tor executable, checks that a running
Tor can be controlled and that it reaches the Tor network, speaks the Tor
control protocol, and runs the two small helper services that a meeting host
publishes next to its voice server.

## Installation

Install the package with pip. It has no runtime dependencies beyond the
standard library; the `test` extra pulls in pytest.

## Tor versions

`wahay.tor.versions` compares versions on their first three numeric parts.
Anything after the third part is ignored.

```python
from wahay.tor.versions import VersionError, compare_versions, parse_version

parse_version("0.12.3.4")                  # (0, 12, 3)
compare_versions("9.1.42.x", "9.1.42.z")   # 0
compare_versions("8.2.1.x", "9.1.42")      # -1

try:
    parse_version("1.12")
except VersionError as err:
    print(err)                             # invalid version string
```

`MIN_SUPPORTED_VERSION` is `"0.3.2"`, the oldest Tor accepted.

## Finding a Tor binary

`wahay.tor.binary.find_tor_binary(tor_path, data_dir, platform)` looks for a
Tor executable in this order:

1. the path configured by the user (if one is set and it is not usable, the
   search stops with `InvalidConfiguredTorBinaryError`: it fails closed
   rather than falling back to another Tor);
2. `tor`, `wahay/tor` and `bin/wahay/tor` under the data directory;
3. `tor` and `bin/tor` under the current working directory;
4. `tor` next to the running program;
5. `tor` on the `PATH`.

Each step is also available on its own (`find_in_config_path`,
`find_in_data_dir`, `find_in_working_dir`, `find_in_wahay_dir`,
`find_in_system`). A candidate is accepted only when `tor --version` reports
a compatible version. A binary that sits next to `libcrypto`, `libevent` and
`libssl` shared libraries is treated as a bundle and run with
`LD_LIBRARY_PATH` pointing at its directory. When nothing is found,
`TorBinaryNotFoundError` is raised; all these errors derive from
`TorBinaryError`.

`TorBinary.start(config_file, platform)` runs `tor -f config_file` and
returns a `RunningTor` whose `wait()` returns the exit status and whose
`stop()` kills the process.

`extract_version_from` pulls a four-part version out of Tor's output:

```python
from wahay.tor.binary import extract_version_from

extract_version_from("Tor version 0.4.2.1.")   # "0.4.2.1"
```

## Checking a running Tor

`wahay.tor.connectivity.Connectivity` checks a Tor control port and SOCKS
port. `check()` connects to the control port, tries authenticating with no
credentials, then with the cookie, then with a password, confirms the
version and finally asks the Tor project's check service, through the SOCKS
port, whether traffic really goes over Tor.

```python
from wahay.tor.connectivity import (
    NoConnectionAllowedError,
    PartialTorError,
    new_default_checker,
)
from wahay.tor.facades import Platform

password = "password"
checker = new_default_checker(9051, password, Platform())
try:
    auth_type = checker.check()     # AuthType.NONE, COOKIE or PASSWORD
except PartialTorError as err:
    print("this Tor cannot be used:", err)
except NoConnectionAllowedError:
    print("Tor is running but cannot reach the network")
```

`PartialTorError` is one of `NoControlPortError`, `NoValidAuthError` or
`TorTooOldError`. `new_custom_checker(host, route_port, control_port,
platform)` builds a checker for a Tor on other ports, without a password.

## Talking to Tor

- `wahay.tor.facades.ControlConnection(address)` opens a control-port
  connection to `host:port` and offers `authenticate_none`,
  `authenticate_cookie`, `authenticate_password`, `get_version`,
  `add_onion` (a mapping of virtual port to target, returning the service
  id) and `delete_onion`. Failures raise `ControlError`. It is a context
  manager.
- `wahay.tor.facades.socks5_connect` opens a socket through a SOCKS5 proxy.
- `wahay.tor.facades.Platform` gathers every operating-system, process and
  network call the Tor code makes; pass another object with the same methods
  to the functions above to run them against something other than the real
  system.
- `wahay.tor.authentication` holds the authentication steps
  (`authenticate_none`, `authenticate_cookie`, `authenticate_password`) and
  `authenticate_any`, which tries several in turn.
- `wahay.ports` offers `is_port_available(port)` and `get_random_port()`.

## Hosting helpers

- `wahay.hosting.network.default_host` returns `0.0.0.0` inside a Whonix
  workstation and `127.0.0.1` everywhere else. `parse_port` turns a port
  string into a number (an empty string gives the default Mumble port
  64738) and raises `InvalidPortError` otherwise; `service_url` adds the
  port to the onion address only when it is not the default one.
  `SuperUserData` holds a super user's name and password.
- `wahay.hosting.certificate.new_certificate_server(directory)` returns a
  `CertificateServer` for the `cert.pem` found in a directory, on a random
  free port; `start()` serves the certificate over HTTP in the background
  and `stop()` shuts it down. A missing file raises `CertificateError`.
- `wahay.hosting.connection_checker.new_check_connection_service()` returns
  a `CheckService` on a random free port; after `start()` it answers every
  line a client sends with `OK`, letting guests confirm that the onion
  service is reachable. `stop()` closes it.

## What the package does not do

There is no command-line program and no graphical interface. The package
does not contain a voice server or client, does not write a Tor
configuration file or manage the lifetime of a Tor it starts beyond
`RunningTor`, and does not wire the hosting helpers to an onion service by
itself: creating the onion service with `ControlConnection.add_onion` and
starting the helpers is left to the caller.