"""newtab core package.

Modules:
- config: INI parsing and config object
- database: SQLite file checks, engine and schema
- models: the Link table
- repository: link queries, create/update/delete and reordering
- favicons: icon discovery from a site's home page
- services: add/edit/icon logic shared by routes and CLI
- app: FastAPI app factory and Uvicorn runner
"""
