# Core: configuration, database, security, middleware
