# backend/farmflow/apps/accounts/__init__.py
"""
Accounts app

Responsible for:
- Tenants (estates) and their module switches
- User accounts and roles (owner / admin / user / viewer)
- Role -> module write/delete rules
- Public auth endpoints (login, current user)

Other apps depend on these models for anything related to
"who is allowed to do what, in which estate".

Import submodules explicitly; `services` depends on `farmflow.security`,
which itself imports `models`.
"""
