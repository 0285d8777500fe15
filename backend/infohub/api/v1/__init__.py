# API v1
