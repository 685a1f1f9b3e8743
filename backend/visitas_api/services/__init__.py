# Services package init
"""
Visitas API: Services Layer
===========================

Service Inventory:
    - procedures.py: StoredProcedureClient (one CALL round trip) and
      parse_status_row (status row → tagged outcome)
    - visit_service.py: VisitService (list / insert / update)

Routes handle HTTP; services decide what each procedure result means.
"""
