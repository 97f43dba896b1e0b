"""
Сервисы бизнес-логики
"""
