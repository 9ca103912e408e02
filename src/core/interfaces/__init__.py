"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan adaptadores concretos.
- Permite invertir dependencias: la receta depende de abstracciones
  (secretos, templates), no de jinja2 ni de archivos concretos.
"""
