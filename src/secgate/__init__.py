"""SecGate — decide whether a build may deploy from its security scanner reports."""

__version__ = "1.0.0"
