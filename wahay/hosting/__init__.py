"""Network settings and helper services that a meeting host publishes."""