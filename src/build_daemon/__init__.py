"""Single-flight build daemon serving build requests on a unix socket."""
