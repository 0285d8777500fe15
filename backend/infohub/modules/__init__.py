# Cross-cutting request modules (authentication, OAuth providers)
