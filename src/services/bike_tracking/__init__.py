"""
Bike Tracking — сервис live-tracking арендованных велосипедов.

Обеспечивает:
- WebSocket соединения для клиентов (несколько устройств на пользователя)
- Команды старта/остановки трекинга и задания цели
- Симуляцию движения и телеметрии на сервере
- Периодическую рассылку location_update владельцам
"""
