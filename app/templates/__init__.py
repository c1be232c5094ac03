"""Report template package.

Defines report templates (incident, arrest, accident, witness and
department-authored ones) and the required-field declarations each
narrative is validated against.
"""
