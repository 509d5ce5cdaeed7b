# Root conftest.py - keeps the project root importable when tests run
# from a source checkout without `pip install -e .`.
