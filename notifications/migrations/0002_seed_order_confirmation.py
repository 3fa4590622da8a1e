from django.db import migrations


def seed_order_confirmation_template(apps, schema_editor):
    EmailTemplate = apps.get_model("notifications", "EmailTemplate")

    EmailTemplate.objects.update_or_create(
        key="order_confirmation",
        defaults={
            "name": "Order confirmation",
            "subject": "Order {{ order_number }} confirmed",
            "body_text": (
                "Hi {{ customer_name }},\n\n"
                "Thank you for your order {{ order_number }}.\n\n"
                "{% for line in lines %}{{ line.name }}{% if line.color_name %} ({{ line.color_name }}){% endif %}"
                " x{{ line.qty }}: {{ currency }} {{ line.line_total }}\n{% endfor %}\n"
                "Subtotal: {{ currency }} {{ subtotal }}\n"
                "Delivery: {{ currency }} {{ delivery_fee }}\n"
                "{% if referral_discount %}Referral discount: -{{ currency }} {{ referral_discount }}\n{% endif %}"
                "Total (cash on delivery): {{ currency }} {{ final_amount }}\n\n"
                "{{ site_name }}\n"
            ),
            "body_html": "",
            "is_active": True,
        },
    )


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_order_confirmation_template,
                             migrations.RunPython.noop),
    ]
