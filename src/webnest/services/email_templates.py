"""Inline HTML bodies for outbound email."""

from datetime import datetime
from html import escape
from typing import Optional

from webnest.config import settings

_WRAPPER = '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">{body}</div>'
_SIGNATURE = "<p>Best regards,<br>WebNest Team</p>"


def verification_email(otp: str, name: str) -> str:
    return _WRAPPER.format(
        body=(
            '<h1 style="color: #2c3e50; text-align: center;">Email Verification</h1>'
            f"<p>Hi {escape(name)},</p>"
            "<p>Please use the following code to verify your WebNest account:</p>"
            '<div style="background: #f5f5f5; padding: 20px; text-align: center; margin: 20px 0;">'
            f'<h2 style="font-size: 24px; color: #3498db;">{escape(otp)}</h2>'
            "</div>"
            f"<p>This code will expire in {settings.OTP_EXPIRE_MINUTES} minutes. "
            "If you didn't request this verification, please ignore this email.</p>"
            f"{_SIGNATURE}"
        )
    )


def password_reset_email(reset_link: str, name: str) -> str:
    return _WRAPPER.format(
        body=(
            '<h1 style="color: #2c3e50; text-align: center;">Password Reset Request</h1>'
            f"<p>Hi {escape(name)},</p>"
            "<p>We received a request to reset your password for your WebNest account.</p>"
            '<div style="text-align: center; margin: 20px 0;">'
            f'<a href="{escape(reset_link, quote=True)}" style="display: inline-block; padding: 12px 24px; '
            'background: #3498db; color: white; text-decoration: none; border-radius: 4px; font-weight: bold;">'
            "Reset Password</a>"
            "</div>"
            "<p>If you didn't request this password reset, please ignore this email.</p>"
            f"{_SIGNATURE}"
        )
    )


def subscription_email(name: str, plan: str, price: str) -> str:
    return _WRAPPER.format(
        body=(
            '<h1 style="color: #2c3e50; text-align: center;">Subscription Confirmation</h1>'
            f"<p>Hi {escape(name)},</p>"
            f"<p>Thank you for upgrading to WebNest {escape(plan)} plan!</p>"
            '<div style="background: #f5f5f5; padding: 20px; margin: 20px 0;">'
            f"<p><strong>Plan:</strong> {escape(plan)}</p>"
            f"<p><strong>Price:</strong> {escape(price)}</p>"
            "</div>"
            "<p>Your subscription will automatically renew every month. "
            "You can manage your subscription from your account settings.</p>"
            f"{_SIGNATURE}"
        )
    )


def deadline_reminder_email(
    title: str,
    project_title: str,
    project_id: str,
    deadline_date: datetime,
    days_until: int,
    description: Optional[str] = None,
) -> str:
    description_block = (
        '<div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">'
        f'<p style="margin: 0; color: #666;">{escape(description)}</p></div>'
        if description
        else ""
    )
    project_url = f"{settings.FRONTEND_URL}/projects/{project_id}"
    return _WRAPPER.format(
        body=(
            '<div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; margin-bottom: 20px;">'
            '<h2 style="color: #dc3545; margin: 0;">Deadline Reminder</h2></div>'
            f'<h3 style="color: #333;">{escape(title)}</h3>'
            f'<p style="color: #666; font-size: 16px;"><strong>Project:</strong> {escape(project_title)}</p>'
            f'<p style="color: #666; font-size: 16px;"><strong>Deadline:</strong> '
            f"{deadline_date.strftime('%Y-%m-%d at %H:%M UTC')}</p>"
            f'<p style="color: #666; font-size: 16px;"><strong>Time Remaining:</strong> {days_until} day(s)</p>'
            f"{description_block}"
            '<div style="margin: 30px 0; text-align: center;">'
            f'<a href="{escape(project_url, quote=True)}" style="background-color: #007bff; color: white; '
            'padding: 12px 30px; text-decoration: none; border-radius: 5px; display: inline-block;">View Project</a>'
            "</div>"
            '<hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">'
            '<p style="color: #999; font-size: 12px; text-align: center;">'
            "This is an automated reminder from WebNest. Please do not reply to this email.</p>"
        )
    )
