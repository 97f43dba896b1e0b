"""
FleetGuard: контроль штрафов и сроков документов автопарка
"""
__version__ = "1.0.0"
