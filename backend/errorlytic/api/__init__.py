# errorlytic/api/__init__.py
