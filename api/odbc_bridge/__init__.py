"""
odbc-bridge: sincronizacion programada de bases ODBC legadas hacia APIs HTTP.
"""
