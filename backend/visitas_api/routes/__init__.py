# Routes package init
"""
Visitas API: Routes Package
===========================

Route Inventory:
    - visits.py:  GET  /Visitas               (list visits)
                  POST /Visitas/insertar      (create a visit)
                  PUT  /Visitas/{cod_visita}  (update a visit)
    - health.py:  GET  /                      (service info)
                  GET  /health                (readiness check)

Routes are thin: they resolve dependencies, call VisitService and return its
result. Errors travel as exceptions to the handlers registered in main.py.
"""
