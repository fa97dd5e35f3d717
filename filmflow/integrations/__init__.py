"""
Filmflow external integrations.
"""

from .hubspot import HubSpotCRM, LeadContact, LeadResult, submit_lead_safely

__all__ = ['HubSpotCRM', 'LeadContact', 'LeadResult', 'submit_lead_safely']
