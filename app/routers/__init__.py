"""
BranchBooks - Routers Package

FastAPI route handlers.

Routers:
- payroll: Salary payments and payroll summaries
- employees: Employee salary advances
- compensation: Employee bonuses and salary increases
- debts: Payables and receivables
- inventory_sub_units: Alternative selling units for inventory items
"""
