"""Resource templates for the Azure workspace composition."""
